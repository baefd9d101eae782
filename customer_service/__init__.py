# customer_service/__init__.py
