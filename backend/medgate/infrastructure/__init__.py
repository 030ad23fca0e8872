"""Infrastructure Layer — logging, storage adapters and data-layer error translation.

Invariants:
    - Infrastructure may import core/ types; core/ never imports infrastructure
    - Third-party exceptions are translated here before they reach the classifier
"""
