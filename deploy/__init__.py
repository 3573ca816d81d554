# deploy/__init__.py
