# Route table for the Netra Drive REST API; update if endpoints change.
# Paths are relative to the API base URL and may carry str.format fields.

BASE_URL = "http://localhost:8000/api/v1"

AUTH = {
    "token": {
        "method": "POST",
        "path": "/auth/token",
    },
    "signup": {
        "method": "POST",
        "path": "/auth/signup",
    },
    "refresh_token": {
        "method": "POST",
        "path": "/auth/refresh_token",
    },
    "verify_email": {
        "method": "GET",
        "path": "/auth/verify-email",
    },
    "forgot_password": {
        "method": "POST",
        "path": "/auth/forgot-password",
    },
    "reset_password": {
        "method": "POST",
        "path": "/auth/reset-password",
    },
}

USERS = {
    "storage": {
        "method": "GET",
        "path": "/users/me/storage",
    }
}

FOLDERS = {
    "list": {
        "method": "GET",
        "path": "/folders/",
    },
    "create": {
        "method": "POST",
        "path": "/folders/",
    },
    "path": {
        "method": "GET",
        "path": "/folders/{id}/path",
    },
    "tree": {
        "method": "GET",
        "path": "/folders/tree",
    },
    "bin": {
        "method": "PUT",
        "path": "/folders/{id}/bin",
    },
    "restore": {
        "method": "PUT",
        "path": "/folders/{id}/restore",
    },
    "delete": {
        "method": "DELETE",
        "path": "/folders/{id}",
    },
    "rename": {
        "method": "PUT",
        "path": "/folders/{id}/rename",
    },
    "move": {
        "method": "PUT",
        "path": "/folders/{id}/move",
    },
    "star": {
        "method": "PUT",
        "path": "/folders/{id}/star",
    },
    "unstar": {
        "method": "PUT",
        "path": "/folders/{id}/unstar",
    },
}

FILES = {
    "list": {
        "method": "GET",
        "path": "/files/",
    },
    "upload": {
        "method": "POST",
        "path": "/files/upload",
    },
    "download": {
        "method": "GET",
        "path": "/files/{id}/download",
    },
    "preview": {
        "method": "GET",
        "path": "/files/{id}/preview",
    },
    "search": {
        "method": "GET",
        "path": "/files/search/",
    },
    "bin": {
        "method": "PUT",
        "path": "/files/{id}/bin",
    },
    "restore": {
        "method": "PUT",
        "path": "/files/{id}/restore",
    },
    "delete": {
        "method": "DELETE",
        "path": "/files/{id}",
    },
    "rename": {
        "method": "PUT",
        "path": "/files/{id}/rename",
    },
    "move": {
        "method": "PUT",
        "path": "/files/{id}/move",
    },
    "star": {
        "method": "PUT",
        "path": "/files/{id}/star",
    },
    "unstar": {
        "method": "PUT",
        "path": "/files/{id}/unstar",
    },
}

TASKS = {
    "list": {
        "method": "GET",
        "path": "/tasks/",
    },
    "cancel": {
        "method": "POST",
        "path": "/tasks/cancel/{id}",
    },
}

SHARE = {
    "generate": {
        "method": "POST",
        "path": "/share/generate/{id}",
    }
}
