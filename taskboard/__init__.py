# Taskboard: file-backed kanban boards and the engine that mutates them
#
# Components:
#   schema.py      - Data model (Board, Column, Card, BoardShape, payload parsing)
#   store.py       - JSON file persistence, one file per board
#   backup.py      - Timestamped pre-mutation snapshots
#   positions.py   - Column-scoped card ranks and sibling shifts
#   references.py  - $ref: aliases for cards created earlier in a batch
#   cards.py       - Single card operations (create/update/move/delete)
#   columns.py     - Column operations (add/update/delete/reorder)
#   batch.py       - Two-pass batch processor
#   formats.py     - Read-only projections (full/summary/compact/cards-only)
#   migration.py   - Legacy nested boards -> flat card list
#   templates.py   - Board templates and cloning
#   audit.py       - JSON-lines audit trail
#   engine.py      - BoardEngine: load -> backup -> mutate -> save
