"""Well-known names written to, and read from, workloads under dev mode."""


class Labels:
    # present on a workload while it is in dev mode
    DEV = "dev.tether.sh"
    # pod template label of the interactive (primary) environment, value is the session name
    INTERACTIVE = "interactive.dev.tether.sh"
    # pod template label of detached (service) environments, value is the session name
    DETACHED = "detached.dev.tether.sh"
    APP = "app"


class Annotations:
    TRANSLATION = "dev.tether.sh/translation"
    SNAPSHOT = "dev.tether.sh/deployment"
    DEVELOPER = "dev.tether.sh/developer"
    VERSION = "dev.tether.sh/version"
    AUTO_CREATE = "dev.tether.sh/auto-create"


class Names:
    VOLUME = "tether"
    BIN_VOLUME = "tether-bin"
    SYNC_SECRET_VOLUME = "tether-sync-secret"
    INIT_CONTAINER = "tether-init"
    SYNC_CONTAINER = "tether-sync"
    SANDBOX_CONTAINER = "dev"
    SYNC_NAME_TEMPLATE = "tether-{name}"
    SYNC_NAME_MAX_LENGTH = 52


class Paths:
    DEFAULT_MOUNT = "/tether"
    DEFAULT_COMMAND = "sh"
    BIN_INIT_MOUNT = "/tether/bin"
    BIN_DEV_MOUNT = "/var/tether/bin"
    SYNC_DATA_MOUNT = "/var/tether"
    SYNC_SECRET_MOUNT = "/var/syncthing/secret/"
    REMOTE_COMMAND = "/var/tether/bin/remote"
    VSCODE_SERVER = "/root/.vscode-server"


TRANSLATION_VERSION = "1.0"
HOSTNAME_TOPOLOGY_KEY = "kubernetes.io/hostname"
MARKER_PATH_ENV = "MARKER_PATH"
REMOTE_SSH_PORT = 22000
