"""Multi-tenant SQLite data layer: dialect, tenant context, store and event log."""