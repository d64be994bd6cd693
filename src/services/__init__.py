"""Ticket intake, routing, lifecycle, SLA and notification services.

Handlers reach these through ``handlers.common.get_ticket_service`` so the
engine and worker pool are only built on first use.
"""
