#!/usr/bin/env python3
"""
Sales Tax Engine - Entry Point

Transaction-time VAT / GST / US sales tax determination for digital
and physical goods.

Usage:
    python main.py calculate --price-cents 1000 --country DE
    python main.py calculate --price-cents 1000 --country ES --epublication
    python main.py calculate --price-cents 1000 --country US --postal-code 98121 --shipping-cents 100
    python main.py rates --country SG
    python main.py jurisdictions --enable IS,JP
"""

from sales_tax.cli import main

if __name__ == "__main__":
    main()
