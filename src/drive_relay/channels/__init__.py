"""
Notification channels.

Components:
- channel_models.py: Channel, MonitorView and lifecycle commands
- lifecycle.py: pure transitions over MonitorView
- monitor.py: ChannelMonitor, runs the commands against Drive and the scheduler
- registry.py: channel id -> account map
"""
