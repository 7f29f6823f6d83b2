"""Input loading for the trace pipeline (epicycle tables)."""

from .epicycle_io import EpicycleTable, load_epicycle_table, read_epicycles

__all__ = ['EpicycleTable', 'load_epicycle_table', 'read_epicycles']
