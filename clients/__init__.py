# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    get_database_url,
    get_valkey_url,
    get_stripe_config,
    get_brand_account_ids,
)
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient, LockNotAcquiredError
from clients.stripe_client import StripeClient
