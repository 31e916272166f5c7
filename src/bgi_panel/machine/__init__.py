"""Remote machine supervision: agent heartbeat, smart plug and recovery sequence."""
