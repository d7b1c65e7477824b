"""
Services Module

- media: Cloudinary uploads and staging of multipart files
- aggregations: Channel profile and watch history read models
"""
