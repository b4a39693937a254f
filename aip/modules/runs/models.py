# Supabase tables: runs, deployments
# This file documents the columns the worker reads and writes.
# Rows are created by the intake API; the worker only updates them via service.py

"""
Expected Supabase table structure (worker-relevant columns):

runs
- id: bigint (primary key)
- deployment_id: bigint (foreign key to deployments.id, not null)
- action: text (not null) - values: plan, apply
- status: text (not null, default: 'queued') - values: queued, running, succeeded, failed
- summary: text (nullable) - last error text for failed runs
- started_at: timestamptz (nullable, set once)
- finished_at: timestamptz (nullable, set once on success)

deployments
- id: bigint (primary key)
- blueprint_id: bigint (not null)
- environment_id: bigint (not null)
- status: text (not null)
- outputs_json: jsonb (nullable) - last `terraform output -json` of a successful apply
"""
