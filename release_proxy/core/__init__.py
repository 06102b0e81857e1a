"""
Core service engine.

The `ModuleRegistry` hands out singleton backing module views, and the
`DownloadProxy` turns an application id and platform into a streamed file.
"""
