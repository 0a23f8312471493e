"""
strand: a fast, declarative plugin installer for Vim and Neovim.
"""

__version__ = "0.3.0"
