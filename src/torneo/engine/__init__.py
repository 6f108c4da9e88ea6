"""
Generation and progression engine.

Pure computations over the dataclasses in torneo.engine.models; nothing in
this package touches the database. Import the submodules directly:

- groups: balanced group allocation
- schedule: round-robin fixtures and matchdays
- standings: group tables and playoff qualifiers
- bracket: single-elimination bracket construction and views
- series: best-of-N progression and winner propagation
"""
