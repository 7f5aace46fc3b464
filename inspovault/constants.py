APP_NAME = "InspoVault"
SCHEMA_VERSION = "1"
