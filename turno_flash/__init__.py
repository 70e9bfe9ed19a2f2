"""
Client core for the Turno Flash appointment-booking system.

This package contains:
- Shared configuration, logging and async helpers (`turno_flash.core`)
- Supabase REST, auth and edge-function client (`turno_flash.db`)
- Normalized entity cache and subscribable stores (`turno_flash.state`)
- License and permission helpers, remote error log (`turno_flash.services`)
- Scheduled reminder dispatch (`turno_flash.reminders`)
"""
