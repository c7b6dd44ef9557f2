"""python -m candi"""

from candi.cli import run

raise SystemExit(run())
