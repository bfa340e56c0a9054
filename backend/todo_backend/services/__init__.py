"""
Todo Backend — Services Layer

    TodoService: per-user todo operations over a ValidatedStore
"""
