"""Core domain services: context, lifecycle, authorization, audit and tenancy."""
