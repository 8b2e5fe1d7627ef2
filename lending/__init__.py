"""Library Lending - Core Application Package

This package contains the lending system modules:
- Domain entities (book.py, member.py, borrowed_book.py)
- Database layer (database.py, repository.py, borrowed_books.py)
- Circulation rules (library_service.py)
- CLI output helpers (ui_helpers.py)
"""
