"""Demo accounts, one per role, for local development and walkthroughs.
(Consumed by scripts/seed_users.py; passwords come from the environment.)
"""

DEMO_USERS = [
    {'name': 'System Admin', 'email': 'admin@kesug.com', 'role': 'admin', 'phone': '0123456789'},
    {'name': 'EXCO User Demo', 'email': 'exco@kesug.com', 'role': 'user', 'phone': '0123456790'},
    {'name': 'Finance Officer Demo', 'email': 'finance@kesug.com', 'role': 'finance_officer', 'phone': '0123456791'},
    {'name': 'Finance MMK Demo', 'email': 'mmk@kesug.com', 'role': 'finance_mmk', 'phone': '0123456792'},
]

DEFAULT_DEPARTMENT = 'Kedah State Government'
