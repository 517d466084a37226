"""
API route modules.

Routers for auth, organization, profiles, tickets, assets, inventory, settings,
notifications, dashboard, reports and audit are included from
maintenance_api.api.main under the /api/v1 prefix; the admin functions router
is mounted at /functions/v1.
"""
