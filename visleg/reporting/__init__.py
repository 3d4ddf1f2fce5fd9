# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Usage statistics and exports."""

from visleg.reporting.service import (
    MonthlyStats,
    build_audit_csv,
    build_comprehensive_csv,
    generate_report,
    get_monthly_stats,
    month_bounds,
)
