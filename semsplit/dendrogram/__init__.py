"""
Dendrogram package for semsplit.

This package contains the pure functions behind the threshold-tuning
screen: cluster counting, leaf ordering and the box-drawing grid
renderer. Nothing here touches git, the engine or the terminal.
"""
