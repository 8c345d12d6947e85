"""Policy attributes evaluated before a controller action runs."""

from actionflow.policies.auth import Auth
from actionflow.policies.base import PolicyAttribute, resolve_redirect
from actionflow.policies.check import Check, CheckTarget
from actionflow.policies.method import Delete, Get, Head, Method, Patch, Post, Put
from actionflow.policies.redirect import Redirect
from actionflow.policies.referer import Referer

__all__ = [
    "Auth",
    "Check",
    "CheckTarget",
    "Delete",
    "Get",
    "Head",
    "Method",
    "Patch",
    "PolicyAttribute",
    "Post",
    "Put",
    "Redirect",
    "Referer",
    "resolve_redirect",
]
