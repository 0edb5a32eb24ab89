# Tally Sync
# Tally ERP -> tenant-scoped store sync and reconciliation service
