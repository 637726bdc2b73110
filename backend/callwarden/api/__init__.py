"""CallWarden - Operational API (health probes and configuration info)."""
