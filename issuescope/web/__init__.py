"""Web transport for Issuescope."""
