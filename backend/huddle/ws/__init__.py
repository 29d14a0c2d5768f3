"""Real-time session channel: protocol, fan-out, heartbeat and connection handler."""
