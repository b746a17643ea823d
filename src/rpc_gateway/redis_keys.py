from enum import StrEnum

DEFAULT_NAMESPACE = "rpc_gateway_demo"

class Counter(StrEnum):
    PAGE_VIEWS = "page_views"
    API_CALLS = "api_calls"

def counter_key(namespace: str, name: str) -> str:
    return f"{namespace}:counter:{name}"

def counter_name(namespace: str, key: str) -> str:
    return key[len(counter_key(namespace, "")):]

def ping_key(namespace: str) -> str:
    return f"{namespace}:ping_test"
