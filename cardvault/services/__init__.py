"""
Use cases for cardvault.

RecordStore orchestrates the host store, the image compressor, the usage
accountant and the degradation ladder. Routers call the store instead of
touching the host store directly.
"""
