"""
Prometheus metrics for ChatWave business operations.

These complement the HTTP metrics provided by
prometheus-fastapi-instrumentator. Labels are kept low-cardinality
(no workspace or channel ids).
"""

from prometheus_client import Counter, Histogram

# ============================================================================
# Tenancy Metrics
# ============================================================================

workspaces_bootstrapped_total = Counter(
    'chatwave_workspaces_bootstrapped_total',
    'Workspaces created by the first-login bootstrap',
)

workspace_bootstrap_races_total = Counter(
    'chatwave_workspace_bootstrap_races_total',
    'Bootstrap calls that lost the race to a concurrent bootstrap for the same user',
)

membership_integrity_violations_total = Counter(
    'chatwave_membership_integrity_violations_total',
    'Users found with more than one workspace membership',
)

authorization_denials_total = Counter(
    'chatwave_authorization_denials_total',
    'Requests rejected because the entity belongs to another workspace',
    ['resource']
)

# ============================================================================
# Message Operation Metrics
# ============================================================================

messages_sent_total = Counter(
    'chatwave_messages_sent_total',
    'Total number of messages sent',
)

channels_created_total = Counter(
    'chatwave_channels_created_total',
    'Total number of channels created',
)

message_searches_total = Counter(
    'chatwave_message_searches_total',
    'Total number of message searches executed',
    ['scope']  # workspace | channel
)

message_operation_duration_seconds = Histogram(
    'chatwave_message_operation_duration_seconds',
    'Duration of message operations in seconds',
    ['operation'],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

message_operation_errors_total = Counter(
    'chatwave_message_operation_errors_total',
    'Total number of message operation errors',
    ['operation', 'error_type']
)

# ============================================================================
# MongoDB Operation Metrics
# ============================================================================

mongodb_operations_total = Counter(
    'chatwave_mongodb_operations_total',
    'Total number of MongoDB write operations',
    ['operation', 'collection', 'status']
)

# ============================================================================
# Blob Store / Seed Metrics
# ============================================================================

files_uploaded_total = Counter(
    'chatwave_files_uploaded_total',
    'Total number of files stored in the blob store',
)

seed_messages_inserted_total = Counter(
    'chatwave_seed_messages_inserted_total',
    'Seed messages inserted into empty channels',
)
