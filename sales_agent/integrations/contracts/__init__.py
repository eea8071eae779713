"""
Contracts (interfaces and data models) for external collaborators.

Mock and real HTTP clients implement the same abstract interfaces and return
the same data shapes, so flows never depend on which one is wired in.
"""
