"""House bots that can take empty seats at a table."""
