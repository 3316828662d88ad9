"""Local tools: bash with command validation, file read/write/edit, glob and grep search."""