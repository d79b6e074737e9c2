"""Constants for the Cert Backup Operator."""

# Controller name used in structured logs
CONTROLLER_NAME = "cert-backup-operator"

# cert-manager API
CERT_MANAGER_GROUP = "cert-manager.io"
CERT_MANAGER_VERSION = "v1"
CERTIFICATE_PLURAL = "certificates"
KIND_CERTIFICATE = "Certificate"

# Condition Types
COND_READY = "Ready"

# Secret data keys
SECRET_KEY_CERTIFICATE = "tls.crt"
SECRET_KEY_PRIVATE_KEY = "tls.key"

# Backup files
BACKUP_SUFFIX_CERTIFICATE = "crt"
BACKUP_SUFFIX_PRIVATE_KEY = "key"
BACKUP_FILE_MODE = 0o700
BACKUP_DIR_MODE = 0o700

# Watch event types as delivered by the API server
WATCH_ADDED = "ADDED"
WATCH_MODIFIED = "MODIFIED"
WATCH_DELETED = "DELETED"
WATCH_BOOKMARK = "BOOKMARK"
WATCH_ERROR = "ERROR"

# Configuration defaults
DEFAULT_KUBECONFIG = "~/.kube/config"
DEFAULT_CERT_LOCATION = "~/cert-backup"
DEFAULT_METRICS_PORT = 8080
DEFAULT_LOG_LEVEL = "INFO"
