"""
comex_pipeline.pipelines — End-to-end orchestrators.

    from comex_pipeline.pipelines import ncm_analysis

    session = await ncm_analysis.run("84713012")
"""
