"""
Word-of-mouth diffusion over clustered networks.

Strong ties live inside fully-connected clusters, weak ties are random
cross-cluster contacts resampled every timestep.
"""
