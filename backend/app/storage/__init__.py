"""
storage — Relational collaborator behind the alert core.

Sub-modules:
    models      — ORM tables (alerts, contacts, events, user_roles)
    repository  — ownership-scoped data access
    notifier    — downstream notify-emergency function and its clients
"""
