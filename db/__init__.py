"""
Database provisioning for the wellness admin dashboard.

This package owns the fixed schema (admins, clients, appointments) and the baseline seed data:
- Backend adapters for local Postgres and serverless SQL-over-HTTP
- Schema creation/teardown
- Admin and baseline client seeding
- The `migrate` command that runs all of it in one transaction
"""
