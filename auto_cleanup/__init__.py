# auto-cleanup — age-based reclamation of tenant workloads
# Copyright (c) 2026 Georgios Kapellakis
# Licensed under AGPL-3.0 — see LICENSE for details.

VERSION = "1.0.0"
