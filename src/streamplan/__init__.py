"""
streamplan: partition planning for distributed stream-processing jobs.

Compiles a logical dataflow graph into a physical plan where every stream
carries a concrete partition count and joined streams are co-partitioned.
"""

__version__ = "0.1.0"
