"""
Task Tracker Test Suite
=======================

Modules:
--------
- test_scoring: penalty calculator (pure, no database)
- test_lifecycle: status state machine
- test_services: task service against the database
- test_reports: report functions
- test_api: REST endpoints

Running Tests:
--------------
    python manage.py test tasks
    pytest
"""
