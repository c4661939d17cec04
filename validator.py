from __future__ import annotations

import pandera.pandas as pa
from pandera.pandas import Column, Check

# DataFrameSchema for experiment point tables (sweeps and scatter)

SCHEMA = pa.DataFrameSchema(
    {
        # core stats every run reports
        "stats:total_value":           Column(float, Check.ge(0)),
        "stats:total_tasks_completed": Column(float, Check.ge(0)),
        "stats:total_tasks_arrived":   Column(float, Check.ge(0)),
        "stats:final_backlog_size":    Column(float, Check.ge(0)),
        "stats:final_team_size":       Column(float, Check.ge(0)),
        "stats:final_team_avg_expertise": Column(float, Check.in_range(0, 1)),
        "stats:final_team_avg_max_expertise_per_topic": Column(float, Check.in_range(0, 1)),
        "stats:info_share":            Column(float, Check.in_range(0, 1)),
        "stats:ask_success_rate":      Column(float, Check.in_range(0, 1)),
        "stats:eviction_rate":         Column(float, Check.ge(0)),

        # everything else under the prefixes
        "^stats:":  Column(float, nullable=True, regex=True),
        "^unit:":   Column(float, Check.in_range(0, 1), regex=True, required=False),
        "^cfg:":    Column(float, nullable=True, regex=True, required=False),
    },
    coerce=True,
    strict=False,              # x / series may hold strings (preset ids)
    index=pa.Index(int),
)

# DataFrameSchema for scenario batch tables (team_runner.run_batch)

BATCH_SCHEMA = pa.DataFrameSchema(
    {
        "scenario_id": Column(str, nullable=False, unique=True),
        "test_label":  Column(str, nullable=False),
        "hypothesis":  Column(str, nullable=False),

        "total_value":           Column(float, Check.ge(0)),
        "total_tasks_completed": Column(float, Check.ge(0)),
        "final_backlog_size":    Column(float, Check.ge(0)),
        "replicates":            Column(float, Check.ge(1)),
        "turnover_events":       Column(float, Check.ge(0)),
        "hires_onboarded":       Column(float, Check.ge(0)),
    },
    coerce=True,
    strict=False,
    index=pa.Index(int),
)

"""
1. What the schemas do

SCHEMA guards the tidy point tables built by curation.points_frame: one row
per sweep/scatter point, with stats:<name>, unit:<key> and cfg:<path>
prefixed columns.  Every stats/cfg column must be numeric; unit values are
probabilities of the sampling cube and must lie in [0,1].

BATCH_SCHEMA guards the replicate-mean table produced by
team_runner.run_batch: one row per scenario id, never duplicated.

2. How you use it in practice

from validator import SCHEMA
SCHEMA.validate(df, lazy=True)   # raises SchemaErrors listing every defect

lazy=True gathers all violations in one report.  strict=False lets
experiments add extra columns without touching this file.
"""
