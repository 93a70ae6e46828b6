"""External capabilities: image fetching and the host design tool."""
