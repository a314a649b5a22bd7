"""Network monitor — generate → classify → persist → alert loop.

Modules
───────
  counters  — mutex-guarded running traffic/threat counters
  pipeline  — NetworkMonitor: control loop, stats flush timer, query surface
  cli       — argparse entry-point
"""
