"""
Financial computation package.

Pure functions only: date arithmetic, statement interest, summaries
and installment plans. Nothing here performs I/O.
"""
