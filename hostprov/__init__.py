"""
hostprov - Host provisioning orchestrator

Runs provisioning units (deploy user, SSH hardening and firewall, Nginx
container, memory logger cron) in order and reports a summary table.
"""

__version__ = "0.1.0"


__all__ = ["RunConfig", "Settings", "load_settings", "get_hostprov_home"]

from .config import RunConfig, Settings, load_settings, get_hostprov_home
