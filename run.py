#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Personal Cloud Server
---------------------
Main entry point: serves a storage directory over HTTP with Basic auth.

    python run.py -d ~/CloudStorage -u admin -P secret -p 8080
"""

import os
import sys

# Add this directory to path so the package imports without installation
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from personal_cloud.cli import main


if __name__ == '__main__':
    sys.exit(main())
