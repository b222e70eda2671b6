API_VERSION = "v1"
API_PREFIX = f"/api/{API_VERSION}/inbox"
CLIENT_VERSION = "0.1.0"
