"""Services Layer — imperative shell around the pure backup core.

Invariants:
    - Every collaborator (catalog, inventory store, storage, clock) is passed in
      at construction; no service reaches for a process-wide handle
    - Services own all awaits; core/ functions they call never do IO
"""
